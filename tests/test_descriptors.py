def test_required_field_cannot_have_default():
    import pytest
    from ga4gh_metadata.descriptors import DefaultValue, FieldDescriptor, FieldKind
    with pytest.raises(ValueError):
        FieldDescriptor(name="id", kind=FieldKind.STRING, required=True, default=DefaultValue(value="x"))


def test_collections_must_be_optional_with_default():
    import pytest
    from ga4gh_metadata.descriptors import FieldDescriptor, FieldKind, optional_field
    with pytest.raises(ValueError):
        FieldDescriptor(name="tags", kind=FieldKind.STRING_ARRAY, required=True)
    with pytest.raises(ValueError):
        optional_field("tags", FieldKind.STRING_ARRAY, default=None)
    assert optional_field("tags", FieldKind.STRING_ARRAY).fill_value() == []


def test_optional_non_nullable_needs_default():
    import pytest
    from ga4gh_metadata.descriptors import FieldDescriptor, FieldKind
    with pytest.raises(ValueError):
        FieldDescriptor(name="count", kind=FieldKind.LONG, required=False)
    fd = FieldDescriptor(name="count", kind=FieldKind.NULLABLE_LONG, required=False)
    assert not fd.has_default
    assert fd.fill_value() is None


def test_default_must_match_kind():
    import pytest
    from ga4gh_metadata.descriptors import FieldKind, optional_field
    with pytest.raises(ValueError):
        optional_field("count", FieldKind.NULLABLE_LONG, default="seven")
    with pytest.raises(ValueError):
        optional_field("species", FieldKind.NULLABLE_TERM, default={"id": "NCBITaxon:9606"})
    assert optional_field("count", FieldKind.NULLABLE_LONG, default=7).fill_value() == 7


def test_reference_and_identifier_rules():
    import pytest
    from ga4gh_metadata.descriptors import FieldKind, optional_field, required_field
    with pytest.raises(ValueError):
        required_field("owner", FieldKind.REFERENCE_ID)
    with pytest.raises(ValueError):
        optional_field("owner", reference_target="Variant")
    with pytest.raises(ValueError):
        optional_field("age", FieldKind.NULLABLE_LONG, reference_target="Individual")
    with pytest.raises(ValueError):
        optional_field("id", identifier=True)
    assert required_field("owner", FieldKind.REFERENCE_ID, reference_target="Individual").reference_target == "Individual"


def test_time_format_only_on_strings():
    import pytest
    from ga4gh_metadata.descriptors import FieldKind, optional_field
    from ga4gh_metadata.timestamps import TimeFormat
    with pytest.raises(ValueError):
        optional_field("age", FieldKind.NULLABLE_LONG, time_format=TimeFormat.PARTIAL_DATE)


def test_fill_value_is_fresh_copy():
    from ga4gh_metadata.descriptors import FieldKind, optional_field
    fd = optional_field("tags", FieldKind.STRING_ARRAY)
    first = fd.fill_value()
    first.append("mutated")
    assert fd.fill_value() == []


def test_record_descriptor_rules():
    import pytest
    from ga4gh_metadata.descriptors import RecordDescriptor, optional_field, required_field
    with pytest.raises(ValueError):
        RecordDescriptor(entity_name="Variant", fields=(required_field("id"),))
    with pytest.raises(ValueError):
        RecordDescriptor(entity_name="Dataset", fields=(optional_field("name"), optional_field("name")))


def test_fingerprint_tracks_layout():
    from ga4gh_metadata.descriptors import FieldKind, RecordDescriptor, optional_field, required_field
    a = RecordDescriptor(entity_name="Dataset", fields=(required_field("id", identifier=True), optional_field("name")))
    b = RecordDescriptor(entity_name="Dataset", fields=(required_field("id", identifier=True), optional_field("name")))
    c = RecordDescriptor(entity_name="Dataset", fields=(required_field("id", identifier=True), optional_field("name", FieldKind.STRING_ARRAY)))
    assert a.fingerprint == b.fingerprint
    assert a.fingerprint != c.fingerprint
    assert a.fingerprint.startswith("sha256:")


def test_describe_shape():
    from ga4gh_metadata.descriptors import describe_shape
    assert describe_shape(None) == "null"
    assert describe_shape(True) == "boolean"
    assert describe_shape(3) == "long"
    assert describe_shape([]) == "array"
    assert describe_shape([1, 2]) == "array<long>"
    assert describe_shape(["a", 1]) == "array<mixed>"
    assert describe_shape({"a": 1}) == "map"
