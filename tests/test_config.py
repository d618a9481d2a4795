import pytest

from crawler.config import Config
from crawler.context import Crawler
from crawler.options import Option

YAML = """
fetcher:
  user_agent: "TestAgent/2.0"
  timeout: 15
  connect_timeout: 3
  verify_ssl: true
redirects:
  allowed: false
  limit: 4
urls:
  encode: false
  strict_paths: true
  secured: false
cookies:
  file: /tmp/jar.txt
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(YAML)
    return path


def test_get_nested_keys(config_file):
    config = Config(str(config_file))

    assert config.get("fetcher", "timeout") == 15
    assert config.get("fetcher", "missing", default="x") == "x"
    assert config.redirects == {"allowed": False, "limit": 4}
    assert config.logging == {}


def test_environment_overrides(config_file, monkeypatch):
    monkeypatch.setenv("CRAWLER_REDIRECTS_LIMIT", "7")
    monkeypatch.setenv("CRAWLER_SECURED", "TRUE")
    monkeypatch.setenv("CRAWLER_TIMEOUT", "2.5")
    monkeypatch.setenv("CRAWLER_LOG_LEVEL", "DEBUG")

    config = Config(str(config_file))

    assert config.get("redirects", "limit") == 7
    assert config.get("urls", "secured") is True
    assert config.get("fetcher", "timeout") == 2.5
    assert config.get("logging", "level") == "DEBUG"


def test_missing_and_invalid_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(str(tmp_path / "absent.yaml"))

    broken = tmp_path / "broken.yaml"
    broken.write_text("fetcher: [unclosed")
    with pytest.raises(ValueError):
        Config(str(broken))


def test_default_config_loads():
    config = Config()

    assert config.get("redirects", "limit") is not None


def test_crawler_configure(config_file):
    crawler = Crawler("example.org").configure(Config(str(config_file)))

    assert crawler.user_agent == "TestAgent/2.0"
    assert crawler.get_option(Option.TIMEOUT) == 15
    assert crawler.get_option(Option.CONNECT_TIMEOUT) == 3
    assert crawler.get_option(Option.VERIFY_SSL) is True
    assert not crawler.redirects_allowed
    assert crawler.redirects_limit == 4
    assert not crawler.encode_urls
    assert crawler.strict_path_handling
    assert not crawler.secured
    assert crawler.get_option(Option.COOKIE_WRITE_FILE) == "/tmp/jar.txt"
