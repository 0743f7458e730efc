from grabber.cli import main

raise SystemExit(main())
