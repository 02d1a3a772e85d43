from autopm.env_auth import EnvAuthConfig, EnvironmentAuthManager, create_env_auth_manager


def _clear(monkeypatch):
    for var in ("GITHUB_TOKEN", "GH_TOKEN", "AZURE_DEVOPS_TOKEN", "AZURE_DEVOPS_PAT", "CI", "GITHUB_ACTIONS", "TF_BUILD"):
        monkeypatch.delenv(var, raising=False)


def test_env_auth_config_defaults():
    config = EnvAuthConfig()
    assert config.load_dotenv is True
    assert config.dotenv_path is None
    assert config.github_token_vars == ("GITHUB_TOKEN", "GH_TOKEN")
    assert config.azure_token_vars == ("AZURE_DEVOPS_TOKEN", "AZURE_DEVOPS_PAT")


def test_no_tokens(monkeypatch, tmp_path):
    _clear(monkeypatch)
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False, search_root=tmp_path))
    assert manager.get_github_token() is None
    assert manager.get_azure_token() is None
    assert manager.get_token("local") is None
    status = manager.status("github")
    assert status["token_present"] is False
    assert any("GITHUB_TOKEN" in tip for tip in status["recommendations"])


def test_token_variable_order(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("GH_TOKEN", "second")
    monkeypatch.setenv("AZURE_DEVOPS_PAT", "pat-value")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False, search_root=tmp_path))
    assert manager.get_github_token() == "second"
    monkeypatch.setenv("GITHUB_TOKEN", "first")
    assert manager.get_github_token() == "first"
    assert manager.get_token("azure") == "pat-value"
    assert manager.status("azure")["recommendations"] == []


def test_blank_token_is_ignored(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("GITHUB_TOKEN", "   ")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False, search_root=tmp_path))
    assert manager.get_github_token() is None


def test_dotenv_file_is_loaded_without_override(monkeypatch, tmp_path):
    _clear(monkeypatch)
    (tmp_path / ".claude").mkdir()
    (tmp_path / ".claude" / ".env").write_text(
        "AZURE_DEVOPS_TOKEN=from-file\nGITHUB_TOKEN=file-gh\n", encoding="utf-8"
    )
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    # load_dotenv writes into os.environ; register the keys so monkeypatch restores them
    monkeypatch.setenv("AZURE_DEVOPS_TOKEN", "")
    monkeypatch.delenv("AZURE_DEVOPS_TOKEN")

    manager = EnvironmentAuthManager(EnvAuthConfig(search_root=tmp_path))

    assert manager.dotenv_file == tmp_path / ".claude" / ".env"
    assert manager.get_azure_token() == "from-file"
    assert manager.get_github_token() == "from-env"


def test_ci_detection(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("GITHUB_ACTIONS", "true")
    manager = create_env_auth_manager(EnvAuthConfig(load_dotenv=False, search_root=tmp_path))
    assert manager.is_ci_environment() is True
    tips = manager.get_authentication_recommendations("github")
    assert not any("gh auth token" in tip for tip in tips)
