from unmapped_pkg.cli import main

raise SystemExit(main())
