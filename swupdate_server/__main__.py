import sys

from swupdate_server.main import main

sys.exit(main())
