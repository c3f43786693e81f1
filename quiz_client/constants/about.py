"""Static metadata describing the quiz client."""

APP_NAME = "QuizClient"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizClient lets students take published quizzes anonymously within a time limit. "
    "Progress is kept on this machine until the attempt is submitted for server-side scoring."
)
