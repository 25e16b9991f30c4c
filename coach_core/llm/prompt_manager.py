from pathlib import Path

class PromptManager:
    """
    Manages loading prompt templates for the assistant
    using pathlib for path operations.
    """

    def __init__(self, prompts_base_path: Path):
        """
        Initializes the PromptManager with the base path for prompts.

        Args:
            prompts_base_path: The root directory where assistant-specific prompt
                               folders are located.
        """
        if not prompts_base_path.is_dir():
            raise FileNotFoundError(f"Prompts base directory not found at: {prompts_base_path}")
        self.prompts_base_path = prompts_base_path

    def _read_file(self, path: Path) -> str:
        """Reads a file and returns its content."""
        try:
            return path.read_text(encoding='utf-8')
        except FileNotFoundError:
            raise FileNotFoundError(f"Prompt file not found at: {path}")
        except OSError as e:
            raise IOError(f"Error reading prompt file at {path}: {e}")

    def load_prompt(self, prompts_dir: str, filename: str) -> str:
        """
        Loads a single, specific prompt file from a prompt directory.

        Args:
            prompts_dir: The name of the assistant's prompt directory.
            filename: The name of the file to load (e.g., 'system.prompt').

        Returns:
            The content of the prompt file as a string.
        """
        prompt_dir = self.prompts_base_path / prompts_dir
        if not prompt_dir.is_dir():
            raise FileNotFoundError(f"Prompt directory '{prompts_dir}' not found at {prompt_dir}")

        return self._read_file(prompt_dir / filename)

    def get_system_prompt(self, prompts_dir: str, system_filename: str = "system.prompt") -> str:
        """Loads the system prompt, stripped of surrounding whitespace."""
        return self.load_prompt(prompts_dir, system_filename).strip()
