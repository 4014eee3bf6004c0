# main.py

"""
CLI Точка входа в пайплайн генерации персонализированных учебных вопросов.

Запуск:
    python main.py --topic TOPIC -g GRADE [OPTIONS]

Опции запроса:
    --subject NAME          Предмет [default: mathematics]
    --topic NAME            Тема (например: Addition, Division) (обязательно)
    -g, --grade N           Класс ученика (1-12) (обязательно)
    -d, --difficulty LEVEL  Сложность (easy, medium, hard) [default: из config.json]
    -q, --questions N       Количество вопросов [default: из config.json]
    -t, --type TYPE         Тип вопросов (multiple_choice, open)

Опции персоны:
    --learning-style STYLE  visual, auditory, kinesthetic, reading_writing
    --interests LIST        Интересы через запятую
    --strengths LIST        Сильные стороны через запятую
    --culture NAME          Культурный контекст [default: New Zealand]

Системные опции:
    -m, --model NAME        Модель GigaChat (например: GigaChat-Pro, GigaChat-Max)
    --no-rag                Не использовать векторный поиск контекста
    -o, --output FILE       Сохранить результат в JSON
    --debug                 Включить подробное логирование (DEBUG level)
    -h, --help              Показать это справочное сообщение

Примеры:
    python main.py --topic Addition -g 3
    python main.py --topic Division -g 5 -d hard -q 10 --interests soccer,dinosaurs
    python main.py --topic Multiplication -g 4 --no-rag -o result.json
"""


import argparse
import json
import logging
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

from models import Persona, PipelineSettings, WorkflowRequest
from services import create_client_from_config, create_index_from_config
from workflow import run_sync



# ============================================================================
# НАСТРОЙКА ЛОГИРОВАНИЯ
# ============================================================================

def setup_logging(debug_mode: bool = False):
    """
    Настройка системы логирования.

    Args:
        debug_mode: Если True - уровень DEBUG, иначе INFO
    """
    level = logging.DEBUG if debug_mode else logging.INFO
    format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    Path("data/logs").mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler("data/logs/app.log", encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Убираем лишний шум от библиотек
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("chromadb").setLevel(logging.WARNING)
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)


# ============================================================================
# ЗАГРУЗКА КОНФИГУРАЦИИ
# ============================================================================

def load_config(config_path: str = "config.json") -> dict:
    """Загрузка конфигурации из JSON файла."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file '{config_path}' not found")
    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_credentials() -> dict:
    """Загрузка секретных ключей из .env файла."""
    load_dotenv()
    client_id = os.getenv('GIGACHAT_CLIENT_ID')
    client_secret = os.getenv('GIGACHAT_CREDENTIALS')

    if not client_id or not client_secret:
        raise ValueError("Missing GIGACHAT_CLIENT_ID or GIGACHAT_CREDENTIALS in .env")

    return {'client_id': client_id, 'client_secret': client_secret}


# ============================================================================
# ПОСТРОЕНИЕ ЗАПРОСА И ВЫВОД
# ============================================================================

def build_request(args: argparse.Namespace, config: dict) -> WorkflowRequest:
    """Сборка WorkflowRequest из аргументов CLI и секции defaults конфига."""
    defaults = config.get("defaults", {})

    interests = [i.strip() for i in (args.interests or "").split(",") if i.strip()]
    strengths = [s.strip() for s in (args.strengths or "").split(",") if s.strip()]
    persona = Persona(
        learning_style=args.learning_style or defaults.get("learning_style", "visual"),
        interests=interests or defaults.get("interests", []),
        strengths=strengths or defaults.get("strengths", []),
        cultural_context=args.culture or defaults.get("cultural_context", "New Zealand"),
    )

    return WorkflowRequest(
        subject=args.subject or defaults.get("subject", "mathematics"),
        topic=args.topic,
        grade=args.grade,
        difficulty=args.difficulty or defaults.get("difficulty", "medium"),
        count=args.questions or defaults.get("questions_count", 5),
        question_type=args.type or defaults.get("question_type", "multiple_choice"),
        persona=persona,
    )


def print_result(result) -> None:
    """Вывод вопросов и отчета о качестве в консоль."""
    report = result.quality_report

    print("\n" + "=" * 60)
    status = "⚠️ DEGRADED" if result.degraded else "✅ OK"
    print(f"🚀 ВОПРОСЫ ГОТОВЫ: {len(result.questions)} шт. [{status}]")
    print("=" * 60)

    for i, question in enumerate(result.questions, 1):
        print(f"\n❓ ВОПРОС {i}/{len(result.questions)}")
        print(f"   {question.question}")
        for idx, opt in enumerate(question.options, 1):
            marker = "✔" if opt == question.correct_answer else " "
            print(f"   {marker} {idx}. {opt}")
        if not question.options:
            print(f"   ✔ Ответ: {question.correct_answer}")
        if question.explanation:
            print(f"   💡 {question.explanation}")
        if question.tags:
            print(f"   🏷  {', '.join(question.tags)}")

    print("\n" + "=" * 60)
    print("📊 ОТЧЕТ О КАЧЕСТВЕ")
    print("=" * 60)
    print(f"   Уверенность:        {report.confidence_score:.2f}")
    print(f"   Проверки пройдены:  {report.validation_pass_rate:.0%}")
    print(f"   Релевантность:      {report.retrieval_relevance:.2f}")
    print(f"   Персонализация:     {report.personalization_strength:.2f}")
    print(f"   Разнообразие:       {report.diversity_score:.2f}")
    print(f"   Повторов:           {result.retry_count}, добито шаблонами: {result.padded_count}")
    if report.issues:
        print("\n   Замечания:")
        for issue in report.issues:
            print(f"   - {issue}")
    print("=" * 60)


# ============================================================================
# ПАРСИНГ АРГУМЕНТОВ КОМАНДНОЙ СТРОКИ
# ============================================================================

def parse_arguments():
    """
    Парсинг аргументов командной строки.
    """
    parser = argparse.ArgumentParser(
        description="🎓 Генератор персонализированных вопросов - CLI версия",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры использования:
  python main.py --topic Addition -g 3
  python main.py --topic Division -g 5 -d hard -q 10 --interests soccer,dinosaurs
  python main.py --topic Multiplication -g 4 --no-rag -o result.json
        """
    )

    # Группа параметров запроса
    req_group = parser.add_argument_group('Параметры запроса')
    req_group.add_argument("--subject", default=None, help="Предмет (по умолчанию mathematics)")
    req_group.add_argument("--topic", required=True, help="Тема вопросов")
    req_group.add_argument("-g", "--grade", type=int, required=True, help="Класс ученика (1-12)")
    req_group.add_argument(
        "-d", "--difficulty",
        choices=['easy', 'medium', 'hard'],
        default=None,
        help="Сложность вопросов (по умолчанию берется из config.json)"
    )
    req_group.add_argument("-q", "--questions", type=int, default=None, help="Количество вопросов")
    req_group.add_argument(
        "-t", "--type",
        choices=['multiple_choice', 'open'],
        default=None,
        help="Тип вопросов"
    )

    # Группа персоны
    persona_group = parser.add_argument_group('Персона ученика')
    persona_group.add_argument(
        "--learning-style",
        choices=['visual', 'auditory', 'kinesthetic', 'reading_writing'],
        default=None,
        help="Стиль обучения"
    )
    persona_group.add_argument("--interests", default=None, help="Интересы через запятую")
    persona_group.add_argument("--strengths", default=None, help="Сильные стороны через запятую")
    persona_group.add_argument("--culture", default=None, help="Культурный контекст")

    # Группа системных настроек
    sys_group = parser.add_argument_group('Системные')
    sys_group.add_argument(
        "-m", "--model",
        type=str,
        default=None,
        help="Модель GigaChat (например: GigaChat-Pro, GigaChat-Max)"
    )
    sys_group.add_argument(
        "--no-rag",
        action="store_true",
        help="Не использовать векторный поиск контекста"
    )
    sys_group.add_argument("-o", "--output", default=None, help="Сохранить результат в JSON файл")
    sys_group.add_argument(
        "--debug",
        action="store_true",
        help="Режим отладки (подробное логирование в консоль и файл)"
    )

    return parser.parse_args()



# ============================================================================
# ГЛАВНАЯ ФУНКЦИЯ
# ============================================================================

def main():
    """
    Главная функция приложения.

    Workflow:
    1. Парсинг аргументов командной строки
    2. Загрузка конфигурации и credentials
    3. Инициализация клиентов
    4. Запуск графа генерации
    5. Вывод и сохранение результата
    """
    args = parse_arguments()

    try:
        setup_logging(args.debug)
        logger = logging.getLogger(__name__)

        logger.info("=" * 70)
        logger.info("APPLICATION START")
        logger.info("=" * 70)

        config = load_config()
        credentials = load_credentials()

        # Если пользователь указал модель через флаг, переопределяем конфиг
        if args.model:
            if "llm_settings" not in config:
                config["llm_settings"] = {}

            old_model = config["llm_settings"].get("model", "GigaChat")
            config["llm_settings"]["model"] = args.model

            print(f"🧠 Модель переопределена: {old_model} -> {args.model}")
            logger.info(f"Model override via CLI: {args.model}")

        settings = PipelineSettings.from_config(config)
        request = build_request(args, config)

        generation_client = create_client_from_config(config, credentials)
        search_client = None
        if not args.no_rag:
            search_client = create_index_from_config(config)

        print(f"\n⚙️ Генерация: {request.topic}, класс {request.grade}, сложность {request.difficulty}")
        print(f"📝 Количество вопросов: {request.count}")
        if args.no_rag:
            print("🔕 Векторный поиск отключен")
        print()

        result = run_sync(request, generation_client, search_client, settings)

        print_result(result)

        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(result.model_dump_json(indent=2))
            print(f"💾 Результат сохранен: {args.output}")

        stats = generation_client.get_usage_stats()
        logger.info(f"Usage stats: {stats}")
        logger.info("Application finished successfully")

    except FileNotFoundError as e:
        print(f"\n❌ Ошибка: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"\n❌ Ошибка конфигурации: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n⚠️ Программа прервана пользователем. До свидания!")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Critical Error: {e}", exc_info=True)
        print(f"\n❌ Критическая ошибка: {e}")
        print("Проверьте логи для подробностей.")
        sys.exit(1)


if __name__ == "__main__":
    main()
