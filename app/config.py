from dynaconf import Dynaconf, Validator

settings = Dynaconf(
    settings_files=["settings.toml", ".secrets.toml"],
    environments=True,
    env_switcher="ENV_FOR_DYNACONF",
    envvar_prefix="SATURN",
    load_dotenv=True,
    validators=[
        Validator("DOMAIN", must_exist=True),
        Validator("DATABASE_URL", default="sqlite+aiosqlite:///./saturn.db"),
        Validator("HTTP_TIMEOUT", default=10.0, gte=0),
        # 0 mantém o actor remoto em cache durante toda a vida do processo
        Validator("ACTOR_CACHE_TTL", default=0, gte=0),
        Validator("SIGNATURE_MAX_CLOCK_SKEW", default=3600, gte=0),
        Validator("AUTO_ACCEPT_FOLLOWS", default=True, is_type_of=bool),
        Validator("OPEN_REGISTRATIONS", default=False, is_type_of=bool),
        Validator("SOFTWARE_NAME", default="saturn"),
        Validator("SOFTWARE_VERSION", default="1.0.0"),
        Validator("USER_AGENT", default="saturn-federation/1.0.0"),
    ],
)
