import sys

from fem_fsi.cli.run_fsi import main

sys.exit(main())
