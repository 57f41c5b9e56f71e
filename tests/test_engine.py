EXPERIMENT_V1 = {
    "id": "e-1",
    "recordCreateTime": "2015-02-10T00:03:42.123Z",
    "recordUpdateTime": "2015-02-10T00:03:42.123Z",
    "library": "lib-1",
}


def _engine_with_experiment_v2():
    """Engine over a registry where Experiment v2 turns ``library`` into a list and adds ``protocol``."""
    import ga4gh_metadata as gm
    from ga4gh_metadata.descriptors import FieldKind, RecordDescriptor, optional_field
    registry = gm.load_registry()
    v1 = registry.lookup("Experiment", 1)
    fields = tuple(
        optional_field("library", FieldKind.STRING_ARRAY) if fd.name == "library" else fd for fd in v1.fields
    ) + (optional_field("protocol"),)
    registry.register("Experiment", 2, RecordDescriptor(entity_name="Experiment", fields=fields))
    return gm.MetadataEngine(registry)


def test_migrate_defaults_to_latest():
    engine = _engine_with_experiment_v2()
    migrated = engine.migrate(EXPERIMENT_V1, "Experiment", 1)
    assert migrated["library"] == ["lib-1"]
    assert migrated["protocol"] is None
    assert "name" not in migrated


def test_ingest_migrates_then_validates():
    engine = _engine_with_experiment_v2()
    record = engine.ingest(EXPERIMENT_V1, "Experiment", writer_version=1)
    assert record["library"] == ["lib-1"]
    assert record["protocol"] is None
    assert record["name"] is None
    assert record["info"] == {}


def test_unknown_field_is_rejected_unless_migrated():
    import pytest
    from ga4gh_metadata import RecordValidationError
    engine = _engine_with_experiment_v2()
    raw = dict(EXPERIMENT_V1, sequencer="HiSeq")
    with pytest.raises(RecordValidationError):
        engine.validate(raw, "Experiment", 1)
    assert "sequencer" not in engine.ingest(raw, "Experiment", writer_version=1, reader_version=1)


def test_ingest_checks_references(engine, sample):
    import pytest
    from ga4gh_metadata import DanglingReferenceError, InMemoryEntityStore
    store = InMemoryEntityStore()
    with pytest.raises(DanglingReferenceError):
        engine.ingest(sample, "Sample", writer_version=1, store=store)
    store.add("Individual", "ind-1")
    assert engine.ingest(sample, "Sample", writer_version=1, store=store)["individualId"] == "ind-1"


def test_resolve_references_through_engine(engine, individual):
    from ga4gh_metadata import InMemoryEntityStore
    individual["groupIds"] = ["g1", "g2"]
    store = InMemoryEntityStore({"IndividualGroup": ["g2"]})
    dangling = engine.find_dangling_references(individual, "Individual", store)
    assert [v.id for v in dangling] == ["g1"]
    store.add("IndividualGroup", "g1")
    engine.resolve_references(individual, "Individual", store)


def test_validate_many_reports_every_bad_row(engine, individual):
    from ga4gh_metadata.violations import DuplicateIdentifier, MissingField
    second = dict(individual, id="ind-2")
    duplicate = dict(individual)
    missing = {k: v for k, v in individual.items() if k != "recordCreateTime"}
    missing["id"] = "ind-3"
    accepted, report = engine.validate_many([individual, second, duplicate, missing], "Individual")
    assert [r["id"] for r in accepted] == ["ind-1", "ind-2"]
    assert report["entity"] == "Individual"
    assert report["schema_version"] == 1
    assert report["counts"] == {"rows": 4, "accepted": 2, "rejected": 2}
    assert [e["row"] for e in report["errors"]] == [2, 3]
    assert report["errors"][0]["violations"] == [DuplicateIdentifier(value="ind-1", first_row=0)]
    assert report["errors"][1]["violations"] == [MissingField(name="recordCreateTime")]


def test_validate_many_with_store(engine, sample):
    from ga4gh_metadata import InMemoryEntityStore
    other = dict(sample, id="s-2", individualId="ind-9")
    accepted, report = engine.validate_many(
        [sample, other], "Sample", store=InMemoryEntityStore({"Individual": ["ind-1"]})
    )
    assert [r["id"] for r in accepted] == ["s-1"]
    (error,) = report["errors"]
    assert error["id"] == "s-2"
    assert error["violations"][0].code == "dangling_reference"


def test_revise_refreshes_update_time(engine, individual):
    from datetime import datetime, timezone
    record = engine.validate(individual, "Individual")
    revised = engine.revise(
        record, "Individual", {"name": "renamed"}, now=datetime(2016, 1, 1, tzinfo=timezone.utc)
    )
    assert revised["name"] == "renamed"
    assert revised["recordUpdateTime"] == "2016-01-01T00:00:00.000Z"
    assert revised["recordCreateTime"] == record["recordCreateTime"]
    assert record["name"] == "NA12878"
    assert record["recordUpdateTime"] == "2015-02-10T00:03:42.123Z"


def test_revise_cannot_change_id(engine, individual):
    import pytest
    record = engine.validate(individual, "Individual")
    with pytest.raises(ValueError):
        engine.revise(record, "Individual", {"id": "other"})


def test_freeze_returns_immutable_model(engine, individual):
    import pytest
    from pydantic import ValidationError
    individual["groupIds"] = ["g1"]
    frozen = engine.freeze(individual, "Individual")
    assert frozen.id == "ind-1"
    assert frozen.groupIds == ("g1",)
    assert type(frozen).__name__ == "IndividualRecord"
    with pytest.raises(ValidationError):
        frozen.name = "changed"


def test_default_engine_uses_bundled_registry():
    import ga4gh_metadata as gm
    engine = gm.MetadataEngine()
    assert engine.registry is gm.default_registry()
    assert engine.descriptor("Dataset").entity_name == "Dataset"


EXPERIMENT_V2 = dict(EXPERIMENT_V1, library=["lib-1"], protocol="p-7")


def test_migrate_from_newer_writer_to_older_reader():
    import pytest
    from ga4gh_metadata import EvolutionError
    engine = _engine_with_experiment_v2()
    migrated = engine.migrate(EXPERIMENT_V2, "Experiment", 2, 1)
    assert migrated["library"] == "lib-1"
    assert "protocol" not in migrated
    with pytest.raises(EvolutionError) as exc:
        engine.migrate(dict(EXPERIMENT_V2, library=["lib-1", "lib-2"]), "Experiment", 2, 1)
    assert exc.value.from_version == 2 and exc.value.to_version == 1
    assert [v.name for v in exc.value.violations] == ["library"]


def test_ingest_from_newer_writer_to_older_reader():
    import pytest
    from ga4gh_metadata import EvolutionError
    engine = _engine_with_experiment_v2()
    record = engine.ingest(EXPERIMENT_V2, "Experiment", writer_version=2, reader_version=1)
    assert record["library"] == "lib-1"
    assert list(record) == engine.descriptor("Experiment", 1).field_names
    with pytest.raises(EvolutionError):
        engine.ingest(dict(EXPERIMENT_V2, library=["a", "b"]), "Experiment", writer_version=2, reader_version=1)


def test_engine_migration_is_idempotent():
    engine = _engine_with_experiment_v2()
    raw = dict(EXPERIMENT_V1, unknownToBoth="x")
    once = engine.migrate(raw, "Experiment", 1, 2)
    assert engine.migrate(once, "Experiment", 2, 2) == once
    back = engine.migrate(EXPERIMENT_V2, "Experiment", 2, 1)
    assert engine.migrate(back, "Experiment", 1, 1) == back


def test_validate_many_reports_non_mapping_rows(engine, individual):
    from ga4gh_metadata.violations import TypeMismatch
    accepted, report = engine.validate_many([["not", "a", "record"], individual, None], "Individual")
    assert [r["id"] for r in accepted] == ["ind-1"]
    assert report["counts"] == {"rows": 3, "accepted": 1, "rejected": 2}
    first, last = report["errors"]
    assert first["row"] == 0 and first["id"] is None
    assert first["violations"] == [TypeMismatch(name="Individual", expected_kind="record", actual_shape="array<string>")]
    assert last["violations"][0].actual_shape == "null"


def test_record_models_follow_defaults():
    from ga4gh_metadata.descriptors import FieldKind, RecordDescriptor, optional_field, required_field
    from ga4gh_metadata.models import build_record_model
    id_field = required_field("id", identifier=True)
    plain = RecordDescriptor(entity_name="Dataset", fields=(id_field, optional_field("count", FieldKind.NULLABLE_LONG)))
    seven = RecordDescriptor(entity_name="Dataset", fields=(id_field, optional_field("count", FieldKind.NULLABLE_LONG, default=7)))
    assert plain.fingerprint != seven.fingerprint
    assert build_record_model(plain) is not build_record_model(seven)
    assert build_record_model(seven) is build_record_model(seven.model_copy())
    assert build_record_model(plain)(id="x").count is None
    assert build_record_model(seven)(id="x").count == 7
