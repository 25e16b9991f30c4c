import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from coach_core.llm import ChatRequest, PromptManager
from coach_core.memory import InMemoryConversation
from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import Message
from coach_core.models.tool_models import ToolCallResult
from coach_core.settings import OrchestrationSettings
from coach_core.tools.executors import WorkoutToolExecutor
from coach_core.utils.config_parser import PROJECT_ROOT, PROMPTS_DIR, load_app_config
from coach_core.workflows.orchestrator import ResponseOrchestrator

# --- LOGGING AND ENVIRONMENT SETUP ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
# Suppress excessively noisy logs from underlying HTTP libraries for cleaner output
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)

load_dotenv(PROJECT_ROOT / ".env")


class ConsoleConversation(InMemoryConversation):
    """An in-memory conversation that echoes tool activity to the terminal."""

    def notify_tool_started(self, name: str, description: str) -> None:
        super().notify_tool_started(name, description)
        print(f"   ⚙️  {description}...")

    def notify_tool_completed(self, result: ToolCallResult) -> None:
        super().notify_tool_completed(result)
        status = "done" if result.success else f"failed ({result.error})"
        print(f"   ⚙️  {result.tool_name}: {status}")

    def notify_conversation_state(self, state: ConversationState, detail: Optional[str] = None) -> None:
        super().notify_conversation_state(state, detail)
        if state == ConversationState.ERROR:
            print(f"   🔴 {detail}")


def print_welcome_message():
    """Prints the welcome message and instructions."""
    print("\n--- Coach Orchestrator: CLI Test Harness ---")
    print("Type 'exit' or 'quit' to end the session.")
    print("Example prompts:")
    print('  - Plain answer: "How many rest days should I take per week?"')
    print('  - Tool call: "Plan an upper body workout for tomorrow."')
    print('  - Lookup: "What is my workout for today?"')
    print("----------------------------------------------------------\n")


def display_reply(message: Message):
    """Prints the final assistant message, with its reasoning if any."""
    if message.reasoning:
        print(f"\n>> 💭 Reasoning: {message.reasoning.strip()}")
    print(f"\n>> 🟢 Coach: {message.content}\n")


async def run_cli():
    """Main coroutine to run the interactive CLI test."""
    print("Initializing orchestrator...")
    try:
        app_config = load_app_config(overrides=sys.argv[1:])
        settings = OrchestrationSettings.from_config(app_config.get("orchestration"))
        conversation = ConsoleConversation(max_history_messages=settings.max_history_messages)
        orchestrator = ResponseOrchestrator.from_config(
            app_config,
            delegate=conversation,
            executors=[WorkoutToolExecutor()],
        )
        system_prompt = PromptManager(PROMPTS_DIR).get_system_prompt(settings.prompts_dir)
    except Exception as e:
        logging.critical("Failed to initialize orchestrator", exc_info=True)
        print(f"\nFATAL: Could not initialize the system. Error: {e}")
        return

    request = ChatRequest(system_prompt=system_prompt, model=os.environ.get("COACH_MODEL"))
    print_welcome_message()

    while True:
        try:
            prompt = await asyncio.to_thread(input, "You: ")
            if prompt.lower() in ["exit", "quit"]:
                print("\nGoodbye!")
                break
            if not prompt.strip():
                continue

            result = await orchestrator.send_message(prompt, request)
            display_reply(conversation.messages[result.final_state.message_index])

        except (KeyboardInterrupt, EOFError):
            print("\n\nSession interrupted by user. Goodbye!")
            break
        except Exception:
            logging.critical("An unexpected error occurred in the main loop", exc_info=True)
            print("\nA critical error occurred. Please check the logs. The session has to end.")
            break


def main():
    asyncio.run(run_cli())


if __name__ == "__main__":
    main()
