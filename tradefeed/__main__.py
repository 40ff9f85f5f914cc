from tradefeed.cli import main

raise SystemExit(main())
