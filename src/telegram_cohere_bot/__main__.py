import sys

from telegram_cohere_bot import main

if __name__ == "__main__":
    sys.exit(main())
