from langchain_gigachat import GigaChat
from typing import Any, Dict, Optional
import asyncio
import logging


logger = logging.getLogger(__name__)


class GigaChatClient:
    """
    Обертка-враппер над LangChain-GigaChat.
    Реализует интерфейс текстовой генерации complete(prompt, constraints) для
    QuestionGenerator. Ведет статистику использования токенов и количества запросов.
    """

    def __init__(
            self,
            credentials: dict,
            model: str = "GigaChat",
            temperature: float = 0.7,
            timeout: int = 30,
            verify_ssl_certs: bool = False,
            count_tokens: bool = True
    ):
        """
        Инициализация клиента GigaChat.

        Args:
            credentials: Словарь с ключами:
                - 'client_id': идентификатор клиента
                - 'client_secret': секретный ключ авторизации
            model: Название модели (GigaChat, GigaChat-Pro, etc.)
            temperature: Параметр случайности генерации (0.0 - 1.0)
            timeout: Таймаут HTTP-запроса в секундах
            verify_ssl_certs: Проверка SSL сертификатов
            count_tokens: Считать токены через API (/tokens/count)
        """
        self.model_name = model
        self.temperature = temperature
        self.timeout = timeout
        self.count_tokens = count_tokens

        if not credentials.get("client_id") or not credentials.get("client_secret"):
            raise ValueError("Credentials must contain 'client_id' and 'client_secret'")

        try:
            self.gigachat = GigaChat(
                credentials=credentials.get("client_secret"),  # LangChain использует client_secret напрямую
                model=self.model_name,
                temperature=self.temperature,
                timeout=self.timeout,
                verify_ssl_certs=verify_ssl_certs
            )
            logger.info(f"GigaChat client initialized: model={model}, temperature={temperature}")
        except Exception as e:
            logger.error(f"Failed to initialize GigaChat: {str(e)}")
            raise

        # Статистика использования
        self.total_prompt_tokens: int = 0
        self.total_completion_tokens: int = 0
        self.total_requests: int = 0

    async def complete(self, prompt: str, constraints: Optional[Dict[str, Any]] = None) -> str:
        """
        Получение сырого текстового ответа модели.

        Args:
            prompt: Текст промпта
            constraints: Ограничения генерации. Поддерживается ключ
                'format' == 'json' - к промпту добавляется требование вернуть
                только JSON.

        Returns:
            str: Сырой текст ответа (может быть невалидным - парсит вызывающая сторона)

        Raises:
            ValueError: Пустой промпт
            Exception: При ошибках сети или API
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        constraints = constraints or {}
        if constraints.get("format") == "json":
            prompt = self._enhance_json_prompt(prompt)

        logger.debug(f"Generating text response (prompt length: {len(prompt)} chars)")

        try:
            response = await self.gigachat.ainvoke(prompt)
        except Exception as e:
            logger.error(f"Error in complete(): {str(e)}", exc_info=True)
            raise

        if hasattr(response, 'content'):
            result_text = response.content
        else:
            result_text = str(response)

        await self._update_stats(prompt, result_text)

        logger.debug(f"Text generation successful (response length: {len(result_text)} chars)")
        return result_text

    def get_usage_stats(self) -> Dict[str, int]:
        """
        Получение текущей статистики использования модели.

        Returns:
            Dict с ключами prompt_tokens, completion_tokens, total_requests
        """
        return {
            "prompt_tokens": self.total_prompt_tokens,
            "completion_tokens": self.total_completion_tokens,
            "total_requests": self.total_requests
        }

    def reset_stats(self) -> None:
        """Сброс статистики использования."""
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        self.total_requests = 0
        logger.debug("Usage stats reset")

    async def _count_tokens(self, text: str) -> int:
        if self.count_tokens:
            try:
                # get_num_tokens синхронный и ходит в API
                return await asyncio.to_thread(self.gigachat.get_num_tokens, text)
            except Exception as e:
                logger.warning(f"Token count fallback: {e}")
        return max(1, round(len(text) / 4.6))

    async def _update_stats(self, prompt: str, response: str) -> None:
        prompt_tokens = await self._count_tokens(prompt)
        completion_tokens = await self._count_tokens(response)
        current_total = prompt_tokens + completion_tokens

        self.total_prompt_tokens += prompt_tokens
        self.total_completion_tokens += completion_tokens
        self.total_requests += 1

        global_total = self.total_prompt_tokens + self.total_completion_tokens

        #p - промт токены, c - сколько нейро выдало
        logger.info(
            f"💰 Token Usage [Req #{self.total_requests}]: "
            f"+{current_total} (P:{prompt_tokens}/C:{completion_tokens}) "
            f"| Total Session: {global_total}"
        )

    @staticmethod
    def _enhance_json_prompt(original_prompt: str) -> str:
        enhancement = (
            "\n\nIMPORTANT: return ONLY a valid JSON array, without comments, "
            "extra text or markdown. Check every comma and quote."
        )
        return original_prompt + enhancement


def create_client_from_config(config: dict, credentials: dict) -> GigaChatClient:
    """
    Фабричная функция для создания GigaChatClient из конфигурации.

    Args:
        config: Словарь с настройками из config.json
        credentials: Словарь с секретными ключами

    Returns:
        Инициализированный GigaChatClient
    """
    llm_settings = config.get("llm_settings", {})

    return GigaChatClient(
        credentials=credentials,
        model=llm_settings.get("model", "GigaChat"),
        temperature=llm_settings.get("temperature", 0.7),
        timeout=llm_settings.get("timeout", 30),
        verify_ssl_certs=llm_settings.get("verify_ssl_certs", False),
        count_tokens=llm_settings.get("count_tokens", True)
    )
