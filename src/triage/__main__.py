import sys

from src.triage.main import main

sys.exit(main())
