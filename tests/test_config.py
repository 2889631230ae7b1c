# Enforcer and storage settings from the environment

import pytest

from warden.audit import AuditLevel, ConsoleAuditor
from warden.config import EnforcerSettings, enforcer_settings_from_env, parse_bool
from warden.errors import ConfigurationError
from warden.match import RegexMatcher
from warden.policy import Enforcer, PolicyEffect
from warden.storage import (
    CachedPolicyManager,
    StorageBackend,
    StorageSettings,
    create_storage,
    settings_from_env,
)
from warden.storage.file import FilePolicyManager

ENV_VARS = [
    "WARDEN_MATCHER",
    "WARDEN_DEFAULT_EFFECT",
    "WARDEN_AUDIT_LEVEL",
    "WARDEN_STRICT_CONDITIONS",
    "WARDEN_LOG_LEVEL",
    "WARDEN_STORAGE_BACKEND",
    "WARDEN_DATABASE_URL",
    "WARDEN_STORAGE_PATH",
    "WARDEN_CACHE_TTL",
    "WARDEN_CACHE_MAX_ENTRIES",
    "WARDEN_POOL_SIZE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_fail_closed():
    settings = enforcer_settings_from_env(load_env_file=False)
    assert settings.matcher == "wildcard"
    assert settings.default_effect == PolicyEffect.DENY
    assert settings.audit_level == AuditLevel.DENY
    assert settings.strict_conditions is False


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("WARDEN_MATCHER", "regex")
    monkeypatch.setenv("WARDEN_DEFAULT_EFFECT", "allow")
    monkeypatch.setenv("WARDEN_AUDIT_LEVEL", "all")
    monkeypatch.setenv("WARDEN_STRICT_CONDITIONS", "yes")

    settings = enforcer_settings_from_env(load_env_file=False)
    assert settings.matcher == "regex"
    assert settings.default_effect == PolicyEffect.ALLOW
    assert settings.audit_level == AuditLevel.ALL
    assert settings.strict_conditions is True


@pytest.mark.parametrize("name, value", [
    ("WARDEN_MATCHER", "fuzzy"),
    ("WARDEN_DEFAULT_EFFECT", "maybe"),
    ("WARDEN_AUDIT_LEVEL", "loud"),
    ("WARDEN_STRICT_CONDITIONS", "sometimes"),
    ("WARDEN_LOG_LEVEL", "CHATTY"),
])
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        enforcer_settings_from_env(load_env_file=False)


def test_parse_bool():
    assert parse_bool(None, True) is True
    assert parse_bool(" ", False) is False
    assert parse_bool("On", False) is True
    assert parse_bool("0", True) is False


def test_enforcer_from_settings():
    from warden.storage import InMemoryPolicyManager

    settings = EnforcerSettings(matcher="regex", default_effect="allow", audit_level="all")
    enforcer = Enforcer.from_settings(InMemoryPolicyManager(), settings)

    assert isinstance(enforcer.matcher, RegexMatcher)
    assert enforcer.default_effect == PolicyEffect.ALLOW
    assert isinstance(enforcer._auditor, ConsoleAuditor)

    quiet = Enforcer.from_settings(
        InMemoryPolicyManager(), EnforcerSettings(audit_level=AuditLevel.NONE)
    )
    assert quiet._auditor is None


def test_storage_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("WARDEN_STORAGE_BACKEND", "file")
    monkeypatch.setenv("WARDEN_STORAGE_PATH", str(tmp_path))
    monkeypatch.setenv("WARDEN_CACHE_TTL", "2.5")
    monkeypatch.setenv("WARDEN_CACHE_MAX_ENTRIES", "50")

    settings = settings_from_env(load_env_file=False)
    assert settings.backend == StorageBackend.FILE
    assert settings.storage_path == str(tmp_path)
    assert settings.cache_ttl_seconds == 2.5
    assert settings.cache_max_entries == 50


def test_backend_detected_from_database_url(monkeypatch):
    monkeypatch.setenv("WARDEN_DATABASE_URL", "postgresql://db/warden")
    assert settings_from_env(load_env_file=False).backend == StorageBackend.POSTGRESQL


@pytest.mark.parametrize("name, value", [
    ("WARDEN_STORAGE_BACKEND", "mongo"),
    ("WARDEN_DATABASE_URL", "oracle://db"),
    ("WARDEN_POOL_SIZE", "many"),
])
def test_invalid_storage_settings(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        settings_from_env(load_env_file=False)


async def test_sql_backend_requires_url():
    with pytest.raises(ConfigurationError):
        await create_storage(StorageSettings(backend=StorageBackend.SQLITE))


async def test_cache_wraps_policy_manager(tmp_path):
    bundle = await create_storage(StorageSettings(
        backend=StorageBackend.FILE, storage_path=str(tmp_path), cache_ttl_seconds=10,
        cache_max_entries=7,
    ))
    assert isinstance(bundle.policies, CachedPolicyManager)
    assert isinstance(bundle.policies.manager, FilePolicyManager)
    assert bundle.policies._max_entries == 7
    await bundle.close()
