"""
Управление миграциями БД GMAO

Использование:
    python scripts/migrate.py                  # upgrade head
    python scripts/migrate.py upgrade <rev>
    python scripts/migrate.py downgrade <rev>  # например -1
    python scripts/migrate.py current
"""
import sys
import os

# Добавляем путь к приложению
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from alembic.config import Config
from alembic import command
from gmao.config import get_settings
from gmao.logger import logger

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "alembic.ini")

COMMANDS = ("upgrade", "downgrade", "current")


def _masked_url(url: str) -> str:
    # Пароль в логах не показываем
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def run_migrations(action: str = "upgrade", revision: str = "head"):
    """
    Выполнение команды Alembic над БД из настроек

    Args:
        action: upgrade, downgrade или current
        revision: Целевая ревизия для upgrade/downgrade
    """
    if action not in COMMANDS:
        raise ValueError(f"Неизвестная команда: {action}. Допустимо: {', '.join(COMMANDS)}")

    database_url = get_settings().database_url
    alembic_cfg = Config(ALEMBIC_INI)
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)

    logger.info("Запуск миграций", extra={
        "action": action,
        "revision": revision,
        "database": _masked_url(database_url)
    })

    try:
        if action == "upgrade":
            command.upgrade(alembic_cfg, revision)
        elif action == "downgrade":
            command.downgrade(alembic_cfg, revision)
        else:
            command.current(alembic_cfg, verbose=True)
    except Exception as e:
        logger.error(f"Ошибка при выполнении миграций: {e}", extra={"action": action, "error": str(e)}, exc_info=True)
        raise

    logger.info("Миграции выполнены", extra={"action": action, "revision": revision})


if __name__ == "__main__":
    args = sys.argv[1:]
    action = args[0] if args else "upgrade"
    revision = args[1] if len(args) > 1 else "head"
    if action == "downgrade" and len(args) < 2:
        print("Для downgrade укажите ревизию, например: python scripts/migrate.py downgrade -1")
        sys.exit(1)
    run_migrations(action, revision)
