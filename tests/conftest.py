import pytest


@pytest.fixture(scope="session")
def registry():
    """Registry built from the bundled schema. Tests must not register into it."""
    import ga4gh_metadata as gm
    return gm.load_registry()


@pytest.fixture
def engine(registry):
    from ga4gh_metadata import MetadataEngine
    return MetadataEngine(registry)


@pytest.fixture
def individual():
    return {
        "id": "ind-1",
        "name": "NA12878",
        "recordCreateTime": "2015-02-10T00:03:42.123Z",
        "recordUpdateTime": "2015-02-10T00:03:42.123Z",
    }


@pytest.fixture
def sample():
    return {
        "id": "s-1",
        "individualId": "ind-1",
        "recordCreateTime": "2015-02-10T00:03:42.123Z",
        "recordUpdateTime": "2015-02-10T00:03:42.123Z",
        "samplingDate": "2015-02-10",
        "samplingAge": 12000,
    }
