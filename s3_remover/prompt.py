"""Interactive yes/no prompts."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Callable, Mapping, Optional

MESSAGE_PREFIX = "S3 Remover: "
ANSWER_PATTERN = re.compile(r"(yes|no)")
INVALID_ANSWER_WARNING = "Must respond yes or no"


class PromptService(ABC):
    """Asks a set of questions and returns the validated answers."""

    @abstractmethod
    async def ask(self, questions: Mapping[str, str]) -> dict[str, str]:
        """
        Ask every question and collect the answers.

        Args:
            questions: Mapping of bucket label to question text.

        Returns:
            Mapping of bucket label to answer, each matching ``yes`` or ``no``.
        """


class PresetPrompt(PromptService):
    """Answers from a mapping collected before the event loop started."""

    def __init__(self, answers: Mapping[str, str]) -> None:
        self.answers = dict(answers)

    async def ask(self, questions: Mapping[str, str]) -> dict[str, str]:
        return {label: self.answers.get(label, "no") for label in questions}


class ConsolePrompt:
    """
    Prompt on the terminal, re-asking until the answer contains yes or no.

    ``collect`` blocks on ``input`` and must run before ``asyncio.run`` so
    that Ctrl-C at the prompt raises KeyboardInterrupt straight away.
    """

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        output_func: Callable[[str], None] = print,
    ) -> None:
        self._input = input_func or input
        self._output = output_func

    def _ask_one(self, question: str) -> str:
        while True:
            answer = self._input(f"{MESSAGE_PREFIX}{question} ").strip()
            if ANSWER_PATTERN.search(answer):
                return answer
            self._output(f"{MESSAGE_PREFIX}{INVALID_ANSWER_WARNING}")

    def collect(self, questions: Mapping[str, str]) -> dict[str, str]:
        """Ask each question in order and return the answers by label."""
        return {label: self._ask_one(question) for label, question in questions.items()}
