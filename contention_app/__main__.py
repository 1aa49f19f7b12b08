from contention_app.cli import main

raise SystemExit(main())
