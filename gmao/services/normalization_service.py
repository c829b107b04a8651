"""
Сервис нормализации данных
Приведение имён работников к единому виду и нечёткий подбор похожих имён
"""
import re
import unicodedata
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz, process


def normalize_person_name(name: Optional[str]) -> str:
    """
    Нормализация ФИО для сопоставления с внешними таблицами

    Приводит к верхнему регистру, убирает диакритику и точки,
    схлопывает пробелы

    Examples:
        >>> normalize_person_name("  José  M. Pérez ")
        "JOSE M PEREZ"
        >>> normalize_person_name("Muñoz")
        "MUNOZ"
    """
    if not name:
        return ""

    decomposed = unicodedata.normalize("NFD", str(name))
    without_marks = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")

    normalized = without_marks.upper().replace(".", "")
    normalized = re.sub(r"\s+", " ", normalized)

    return normalized.strip()


def find_similar_name(
    name: str,
    candidates: Dict[int, str],
    threshold: int = 70
) -> Optional[Tuple[int, str, float]]:
    """
    Поиск наиболее похожего имени среди кандидатов

    Результат носит справочный характер и не используется для распределения затрат

    Args:
        name: Исходное имя
        candidates: ID -> имя кандидата
        threshold: Порог схожести (0-100)

    Returns:
        (ID, имя кандидата, score) или None
    """
    normalized = normalize_person_name(name)
    if not normalized or not candidates:
        return None

    choices = {key: normalize_person_name(value) for key, value in candidates.items()}
    best = process.extractOne(normalized, choices, scorer=fuzz.token_sort_ratio, score_cutoff=threshold)
    if best is None:
        return None

    _, score, key = best
    return key, candidates[key], float(score)


def build_name_index(names: Dict[int, str]) -> Dict[str, List[int]]:
    """
    Индекс нормализованное имя -> ID (несколько ID при совпадении имён)
    """
    index: Dict[str, List[int]] = {}
    for key, value in names.items():
        normalized = normalize_person_name(value)
        if normalized:
            index.setdefault(normalized, []).append(key)
    return index
