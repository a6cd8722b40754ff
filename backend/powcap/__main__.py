import sys

from powcap.main import main

sys.exit(main())
