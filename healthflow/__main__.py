import sys

from healthflow.cli import main


sys.exit(main())
