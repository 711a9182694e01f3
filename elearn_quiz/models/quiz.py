from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


Lang = Literal["UA", "PL", "EN"]


class OptionOut(BaseModel):
    id: str
    text: str
    # pas de flag "correct" : jamais envoyé avant soumission


class QuestionOut(BaseModel):
    id: str
    text: str = Field(..., description="Énoncé de la question")
    options: List[OptionOut] = Field(..., description="Propositions, dans l'ordre mélangé servi")


class QuizOut(BaseModel):
    id: str
    title: str
    durationSec: int
    questions: List[QuestionOut]
    token: str = Field(..., description="Quiz token signé, à renvoyer au submit")


class AnswerIn(BaseModel):
    questionId: str = Field(..., min_length=1)
    # toléré vide : une question non répondue est simplement ignorée
    optionId: Optional[str] = None


class SubmitIn(BaseModel):
    token: str = Field(..., description="Quiz token reçu au GET /quiz/{id}")
    answers: List[AnswerIn] = Field(default_factory=list, max_length=500)
    lang: Optional[Lang] = None


class SubmitOut(BaseModel):
    correct: int
    total: int
    xpEarned: int
    correctMap: Dict[str, str] = Field(..., description="questionId -> optionId correct")
    solutions: Dict[str, str] = Field(..., description="questionId -> explication")


class HistoryItem(BaseModel):
    quizId: str
    quizTitle: str
    correct: int
    total: int
    lastAttempt: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class HistoryOut(BaseModel):
    data: List[HistoryItem]
    pagination: Pagination
