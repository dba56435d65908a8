import sys

from lightloop.app import main

sys.exit(main())
