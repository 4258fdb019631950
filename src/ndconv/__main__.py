from ndconv.cli import main

raise SystemExit(main())
