from __future__ import annotations

import importlib

from dotenv import load_dotenv

from classroom.config import get_settings_module
from classroom.core.logging import get_logger, setup_logging
from classroom.database.bootstrap import apply_schema, list_tables

log = get_logger("classroom.scripts.init_db")


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    setup_logging(log_level=str(getattr(settings, "LOG_LEVEL", "INFO")))
    db_config = dict(settings.DB_CONFIG)

    statements = apply_schema(db_config)
    tables = list_tables(db_config)
    log.info(
        "schema_applied",
        target=f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}",
        statements=statements,
        tables=len(tables),
    )


if __name__ == "__main__":
    main()
