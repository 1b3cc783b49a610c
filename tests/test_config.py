from bolt.config import Settings


def test_csv_env_values_are_split(monkeypatch):
    monkeypatch.setenv("ALLOWED_EMAIL_DOMAINS", "vertodigital.com, @Example.com")
    monkeypatch.setenv("BACKEND_CORS_ORIGINS", "http://localhost:3000,https://app.bolt.test")
    monkeypatch.setenv("GOOGLE_ISSUERS", "accounts.google.com")

    loaded = Settings(_env_file=None)

    assert loaded.ALLOWED_EMAIL_DOMAINS == ["vertodigital.com", "example.com"]
    assert loaded.BACKEND_CORS_ORIGINS == ["http://localhost:3000", "https://app.bolt.test"]
    assert loaded.GOOGLE_ISSUERS == ["accounts.google.com"]


def test_json_list_env_values_still_accepted(monkeypatch):
    monkeypatch.setenv("ALLOWED_EMAIL_DOMAINS", '["vertodigital.com", "example.com"]')

    loaded = Settings(_env_file=None)

    assert loaded.ALLOWED_EMAIL_DOMAINS == ["vertodigital.com", "example.com"]
