import sys

from attendance_bot.runner import main

sys.exit(main())
