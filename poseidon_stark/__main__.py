import sys

from poseidon_stark.cli import main

sys.exit(main())
