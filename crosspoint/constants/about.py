"""Static metadata describing Crosspoint."""

APP_NAME = "Crosspoint"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "Crosspoint is a question and answer board where anyone can ask, "
    "and answering a category is unlocked by passing a short expert quiz."
)
