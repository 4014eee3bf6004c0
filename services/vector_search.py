import asyncio
import chromadb
from chromadb.utils import embedding_functions
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ChromaCurriculumIndex:
    """
    Поиск учебного контекста в векторном хранилище.
    Использует ChromaDB (PersistentClient) с эмбеддингами sentence-transformers.

    Реализует интерфейс search(query_text, filters, top_k) для ContentRetriever.
    Индексация документов выполняется отдельно и здесь не поддерживается.
    """

    def __init__(
            self,
            persist_directory: str = "data/vector_db",
            collection_name: str = "curriculum",
            embedding_model: str = "all-MiniLM-L6-v2",
            collection=None
    ):
        """
        :param persist_directory: Каталог хранилища ChromaDB
        :param collection_name: Имя коллекции с учебными материалами
        :param embedding_model: Модель sentence-transformers для запросов
        :param collection: Готовая коллекция (если передана, клиент не создается)
        """
        if collection is None:
            self.client = chromadb.PersistentClient(path=persist_directory)

            # Модель скачается один раз при первом запуске
            sentence_transformer_ef = embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=embedding_model
            )

            collection = self.client.get_or_create_collection(
                name=collection_name,
                embedding_function=sentence_transformer_ef,
                metadata={"description": "Curriculum snippets", "hnsw:space": "cosine"}
            )

        self.collection = collection
        logger.info(f"ChromaCurriculumIndex initialized: collection={collection_name}")

    async def search(
            self,
            query_text: str,
            filters: Optional[Dict[str, Any]] = None,
            top_k: int = 5
    ) -> List[Dict[str, Any]]:
        """
        Семантический поиск фрагментов.

        Args:
            query_text: Текст запроса
            filters: Фильтры по метаданным (subject, grade, topic)
            top_k: Максимум результатов

        Returns:
            Список словарей {text, relevance_score, metadata}
        """
        # chromadb синхронный - уводим вызов в поток
        return await asyncio.to_thread(self._query, query_text, filters or {}, top_k)

    def _query(self, query_text: str, filters: Dict[str, Any], top_k: int) -> List[Dict[str, Any]]:
        where = self._build_where(filters)

        results = self.collection.query(
            query_texts=[query_text],
            n_results=top_k,
            where=where
        )

        documents = (results.get("documents") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0] or [{}] * len(documents)

        found = []
        for doc, distance, metadata in zip(documents, distances, metadatas):
            # Cosine distance to similarity: 1 - distance
            relevance = max(0.0, min(1.0, 1 - float(distance)))
            found.append({
                "text": doc,
                "relevance_score": relevance,
                "metadata": metadata or {},
            })

        logger.debug(f"Vector search '{query_text}' -> {len(found)} results")
        return found

    @staticmethod
    def _build_where(filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # Тема ищется семантически, фильтруем только по предмету и классу
        conditions = [
            {key: filters[key]}
            for key in ("subject", "grade")
            if filters.get(key) is not None
        ]
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def count(self) -> int:
        return self.collection.count()


def create_index_from_config(config: dict) -> ChromaCurriculumIndex:
    """Фабричная функция: индекс по секции vector_search из config.json"""
    settings = config.get("vector_search", {})
    return ChromaCurriculumIndex(
        persist_directory=settings.get("persist_directory", "data/vector_db"),
        collection_name=settings.get("collection", "curriculum"),
        embedding_model=settings.get("embedding_model", "all-MiniLM-L6-v2")
    )
