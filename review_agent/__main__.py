import sys

from review_agent.cli import main

sys.exit(main())
