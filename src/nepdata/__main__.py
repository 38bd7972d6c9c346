from nepdata.cli import main

raise SystemExit(main())
