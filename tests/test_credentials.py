"""Tests for the credential file resolver"""
import pytest

from schemaops.core.config import Settings
from schemaops.core.credentials import (
    ConnectionDescriptor,
    parse_credentials,
    parse_key_values,
    resolve,
    resolve_credentials,
)
from schemaops.core.errors import ConfigError


AWS_TXT = """
# AWS RDS credentials
DB_HOST=monitor.abc123.eu-west-1.rds.amazonaws.com
DB_PORT=5433
DB_DATABASE=postgres
DB_USERNAME=monitor_admin
DB_PASSWORD=s3cr=et==
DB_REGION=eu-west-1
"""


@pytest.fixture
def settings():
    return Settings(_env_file=None)


def test_parse_rds_credentials(settings):
    descriptor = parse_credentials(AWS_TXT, settings)
    assert descriptor.host == "monitor.abc123.eu-west-1.rds.amazonaws.com"
    assert descriptor.port == 5433
    assert descriptor.user == "monitor_admin"
    # Split on the first '=' only
    assert descriptor.password == "s3cr=et=="
    assert descriptor.tls_required is True


def test_placeholder_database_falls_back_to_default(settings):
    descriptor = parse_credentials(AWS_TXT, settings)
    assert descriptor.database == "tiktok_monitor"


@pytest.mark.parametrize("value", ["localhost", "127.0.0.1"])
def test_hostlike_database_falls_back_to_default(settings, value):
    descriptor = parse_credentials(f"DB_DATABASE={value}", settings)
    assert descriptor.database == settings.DEFAULT_DATABASE


def test_explicit_database_is_kept(settings):
    descriptor = parse_credentials("DB_DATABASE=monitor_prod", settings)
    assert descriptor.database == "monitor_prod"


def test_empty_file_uses_local_defaults(settings):
    descriptor = parse_credentials("", settings)
    assert descriptor == ConnectionDescriptor(
        host="localhost",
        port=5432,
        database="tiktok_monitor",
        user="postgres",
        password="",
        tls_required=False,
    )


def test_comments_blank_and_malformed_lines_ignored():
    values = parse_key_values("\n# DB_HOST=ignored\n   \nnot a pair\nDB_HOST = db.local \nDB_PASSWORD=\n")
    assert values == {"host": "db.local"}


def test_aliases_without_prefix(settings):
    descriptor = parse_credentials("server=db.internal\nuser=bob\npassword=pw", settings)
    assert descriptor.host == "db.internal"
    assert descriptor.user == "bob"
    assert descriptor.password == "pw"
    assert descriptor.tls_required is False


def test_unknown_keys_retained_in_extras(settings):
    descriptor = parse_credentials(AWS_TXT, settings)
    assert descriptor.extras == {"region": "eu-west-1"}


def test_tls_follows_configured_suffixes():
    settings = Settings(_env_file=None, MANAGED_HOST_SUFFIXES=[".db.example.net"])
    assert parse_credentials("DB_HOST=pg1.db.example.net", settings).tls_required is True
    assert parse_credentials("DB_HOST=x.rds.amazonaws.com", settings).tls_required is False


@pytest.mark.parametrize("port", ["abc", "0", "70000"])
def test_invalid_port_raises_config_error(settings, port):
    with pytest.raises(ConfigError):
        parse_credentials(f"DB_PORT={port}", settings)


def test_password_not_in_repr_or_summary(settings):
    descriptor = parse_credentials(AWS_TXT, settings)
    assert "s3cr" not in repr(descriptor)
    assert "s3cr" not in descriptor.safe_summary()
    assert "monitor_admin@" in descriptor.safe_summary()


def test_resolve_reads_file(tmp_path, settings):
    path = tmp_path / "aws.txt"
    path.write_text(AWS_TXT)
    descriptor = resolve(str(path), settings)
    assert descriptor.user == "monitor_admin"


def test_resolve_missing_file_raises(tmp_path, settings):
    missing = tmp_path / "nope.txt"
    with pytest.raises(ConfigError) as exc_info:
        resolve(str(missing), settings)
    assert exc_info.value.path == str(missing)


def test_resolve_bad_value_reports_path(tmp_path, settings):
    path = tmp_path / "aws.txt"
    path.write_text("DB_PORT=five")
    with pytest.raises(ConfigError) as exc_info:
        resolve(str(path), settings)
    assert exc_info.value.path == str(path)


def test_resolve_credentials_returns_result(tmp_path, settings):
    descriptor, error = resolve_credentials(str(tmp_path / "missing.txt"), settings)
    assert descriptor is None
    assert isinstance(error, ConfigError)

    path = tmp_path / "aws.txt"
    path.write_text("DB_HOST=db.local")
    descriptor, error = resolve_credentials(str(path), settings)
    assert error is None
    assert descriptor.host == "db.local"
