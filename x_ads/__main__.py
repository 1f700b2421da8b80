import sys

from x_ads.cli import main

sys.exit(main())
