from project_bundle.cli import main

raise SystemExit(main())
