import pytest

from polar4_api.config import Settings

SAMPLE_CSV = (
    "Postcode,POLAR4_quintile\n"
    "AB10 1AA,2\n"
    "AB10 1AB,5\n"
    "\"EH1 1YZ\",\"1\"\n"
    "SW1A 1AA,3\n"
)


@pytest.fixture
def write_csv(tmp_path):
    def _write(content, name="postcodes.csv", encoding="utf-8"):
        path = tmp_path / name
        path.write_bytes(content.encode(encoding))
        return path

    return _write


@pytest.fixture
def sample_csv(write_csv):
    return write_csv(SAMPLE_CSV)


@pytest.fixture
def settings(sample_csv):
    return Settings(csv_path=str(sample_csv), environment="test", rate_limit=1000)
