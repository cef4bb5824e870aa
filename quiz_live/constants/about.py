"""Static metadata describing QuizLive."""

APP_NAME = "QuizLive"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizLive runs synchronized classroom quizzes: one host display drives the "
    "phases while every student device follows along through a shared record store."
)
