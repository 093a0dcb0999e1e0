import sys

from embedded_rabbitmq.cli import main

sys.exit(main())
