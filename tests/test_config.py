from agenda_invites.config import Settings


def make(**env):
    return Settings(_env_file=None, **env)


def test_database_url_wins_over_db_path():
    s = make(DATABASE_URL=" postgresql+psycopg://u:p@db/agenda ", DB_PATH="x.sqlite")
    assert s.resolved_database_url == "postgresql+psycopg://u:p@db/agenda"


def test_db_path_becomes_sqlite_url():
    assert make(DATABASE_URL="", DB_PATH="data/a.sqlite").resolved_database_url == "sqlite:///./data/a.sqlite"
    assert make(DATABASE_URL="", DB_PATH="/var/lib/a.sqlite").resolved_database_url == "sqlite:////var/lib/a.sqlite"
    assert make(DATABASE_URL="", DB_PATH="sqlite://").resolved_database_url == "sqlite://"


def test_normalizers():
    s = make(
        CORS_ALLOW_ORIGINS="https://a.example, ,https://b.example",
        LOG_LEVEL="debug",
        PERSONNEL_REGISTRY_URL="https://hr.example/api/",
        INVITATIONS_PAGE_LIMIT="500",
        APP_ENV="Production",
    )
    assert s.cors_allow_origins == ["https://a.example", "https://b.example"]
    assert s.log_level == "DEBUG"
    assert s.personnel_registry_url == "https://hr.example/api"
    assert s.invitations_page_limit == 100
    assert s.is_prod
