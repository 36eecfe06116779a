import sys

from trial_notifier.scheduler import main

if __name__ == "__main__":
    sys.exit(main())
