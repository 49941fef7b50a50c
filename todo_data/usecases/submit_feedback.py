from __future__ import annotations

from dataclasses import dataclass, field

from todo_data.domain.entities import Feedback
from todo_data.domain.errors import ErrorKind
from todo_data.domain.outcome import Error, Outcome
from todo_data.domain.params import SubmitFeedbackParams
from todo_data.domain.validation import FeedbackValidator
from todo_data.usecases.feedback_repository import FeedbackRepository


@dataclass
class SubmitFeedback:
    repository: FeedbackRepository
    validator: FeedbackValidator = field(default_factory=FeedbackValidator)

    async def __call__(self, params: SubmitFeedbackParams) -> Outcome[Feedback]:
        result = self.validator.validate_submit(params)
        if not result.valid:
            return Error(ErrorKind.VALIDATION, result.message)
        return await self.repository.submit(params)
