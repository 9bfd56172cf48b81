from zkop.settings import Settings, _env_bool, _env_float, _env_int


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("ZKOP_T_BOOL", "Yes")
    monkeypatch.setenv("ZKOP_T_INT", "12")
    monkeypatch.setenv("ZKOP_T_BAD_INT", "twelve")
    monkeypatch.setenv("ZKOP_T_FLOAT", "0.25")

    assert _env_bool("ZKOP_T_BOOL") is True
    assert _env_bool("ZKOP_T_MISSING", default=True) is True
    assert _env_int("ZKOP_T_INT", 1) == 12
    assert _env_int("ZKOP_T_BAD_INT", 1) == 1
    assert _env_float("ZKOP_T_FLOAT", 1.0) == 0.25
    assert _env_float("ZKOP_T_MISSING", 1.5) == 1.5


def test_defaults():
    s = Settings()
    assert s.resync_interval_s == 8
    assert s.zk_connect_timeout_s == 1.0
    assert s.default_repository == "blafrisch/zookeeper"
    assert s.default_version == "3.5.3-beta"
    assert s.service_domain == "svc"
