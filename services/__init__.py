"""
Слой инфраструктуры (Infrastructure Layer).

Этот пакет содержит адаптеры внешних сервисов. Модули этого слоя не содержат
бизнес-логики и не знают о графе генерации - они выполняют только
технические задачи.

Компоненты:
    - GigaChatClient: Текстовая генерация через GigaChat API (LangChain)
    - ChromaCurriculumIndex: Векторный поиск учебного контекста (ChromaDB)
"""

from services.gigachat_client import GigaChatClient, create_client_from_config
from services.vector_search import ChromaCurriculumIndex, create_index_from_config

# Публичный API пакета
__all__ = [
    # Основные классы
    "GigaChatClient",
    "ChromaCurriculumIndex",

    # Фабричные функции
    "create_client_from_config",
    "create_index_from_config",
]

# Метаданные пакета
__version__ = "1.0.0"
__author__ = "Question Pipeline Team"
