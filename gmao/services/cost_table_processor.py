"""
Чтение внешней таблицы затрат на персонал (XLSX или CSV)
"""
from io import BytesIO
from typing import List, Optional

import pandas as pd

from gmao.exceptions import BusinessValidationError
from gmao.logger import logger
from gmao.schemas import WorkerCostEntry


# Возможные заголовки колонок (сравнение без учёта регистра)
NAME_COLUMNS = ("name", "nombre", "trabajador", "empleado", "worker", "фио", "работник")
AMOUNT_COLUMNS = ("amount", "importe", "coste", "costo", "total", "сумма", "затраты")


class CostTableProcessor:
    """
    Процессор внешней таблицы затрат: строки (имя, сумма)
    """

    SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")

    def process_file(self, content: bytes, file_name: str) -> List[WorkerCostEntry]:
        """
        Разбор файла таблицы затрат

        Колонки ищутся по заголовку, при отсутствии известных заголовков
        используются первые две колонки. Строки без имени или с нечисловой
        суммой пропускаются.

        Raises:
            BusinessValidationError: Неподдерживаемый формат или пустая таблица
        """
        lower_name = (file_name or "").lower()
        if not lower_name.endswith(self.SUPPORTED_EXTENSIONS):
            raise BusinessValidationError(
                f"Неподдерживаемый формат файла: {file_name}. Допустимо: {', '.join(self.SUPPORTED_EXTENSIONS)}"
            )

        try:
            if lower_name.endswith(".csv"):
                df = pd.read_csv(BytesIO(content), sep=None, engine="python", dtype=str)
            else:
                df = pd.read_excel(BytesIO(content), engine="openpyxl", dtype=str)
        except (ValueError, pd.errors.ParserError) as e:
            logger.error(f"Ошибка чтения таблицы затрат: {file_name}", extra={"error": str(e)}, exc_info=True)
            raise BusinessValidationError(f"Не удалось прочитать файл {file_name}: {e}")

        return self._process_dataframe(df, file_name)

    def _find_column(self, df: pd.DataFrame, candidates, fallback_index: int) -> Optional[str]:
        for column in df.columns:
            if str(column).strip().lower() in candidates:
                return column
        if len(df.columns) > fallback_index:
            return df.columns[fallback_index]
        return None

    def _process_dataframe(self, df: pd.DataFrame, file_name: str) -> List[WorkerCostEntry]:
        name_column = self._find_column(df, NAME_COLUMNS, 0)
        amount_column = self._find_column(df, AMOUNT_COLUMNS, 1)
        if name_column is None or amount_column is None or name_column == amount_column:
            raise BusinessValidationError("В таблице затрат должны быть колонки с именем работника и суммой")

        names = df[name_column].fillna("").astype(str).str.strip()
        amounts = pd.to_numeric(
            df[amount_column].fillna("").astype(str).str.strip().str.replace(",", ".", regex=False),
            errors="coerce"
        )

        entries: List[WorkerCostEntry] = []
        skipped = 0
        for name, amount in zip(names, amounts):
            if not name or pd.isna(amount):
                skipped += 1
                continue
            entries.append(WorkerCostEntry(name=name, amount=float(amount)))

        if skipped:
            logger.warning(
                "Строки таблицы затрат пропущены",
                extra={"file_name": file_name, "skipped": skipped}
            )

        if not entries:
            raise BusinessValidationError(f"В файле {file_name} не найдено ни одной строки затрат")

        logger.info("Таблица затрат прочитана", extra={"file_name": file_name, "entries_count": len(entries)})
        return entries
