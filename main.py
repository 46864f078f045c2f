import asyncio
import logging
import os

import dotenv

from byomux import UnifiedChatClient, RichStreamPrinter, ByomuxError, load_settings
from byomux.utils import create_message, create_tool

dotenv.load_dotenv()

# Set BYOMUX_DEMO_BASE_URL, BYOMUX_DEMO_FORMAT and BYOMUX_KEY_CUSTOM_DEMO in .env
BASE_URL = os.getenv("BYOMUX_DEMO_BASE_URL", "https://api.openai.com")
API_FORMAT = os.getenv("BYOMUX_DEMO_FORMAT", "openai-chat")
MODEL = os.getenv("BYOMUX_DEMO_MODEL")


async def main():
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    client = UnifiedChatClient(settings=settings)
    provider_id = client.add_provider("Demo", BASE_URL, API_FORMAT)

    models = await client.list_models(provider_id)
    for model in models:
        print(f"{model.id}  tools={model.supports_tools} vision={model.supports_vision} "
              f"thinking={model.supports_thinking}")
    if not models and not MODEL:
        print("No models discovered; set BYOMUX_DEMO_MODEL to pick one manually.")
        return

    model = f"{provider_id}:{MODEL}" if MODEL else models[0].id
    messages = [
        create_message("system", "You are a concise assistant."),
        create_message("user", "What is the weather in Paris? Use the tool if you need it."),
    ]
    tools = [
        create_tool(
            "get_weather",
            "Get the current weather for a city",
            {"city": {"type": "string", "description": "City name"}},
            required=["city"],
        )
    ]

    printer = RichStreamPrinter(model=model)
    try:
        await printer.print_stream(client.stream_chat(model, messages, tools))
    except ByomuxError as e:
        print(f"{model}: Error - {e}")


if __name__ == "__main__":
    asyncio.run(main())
