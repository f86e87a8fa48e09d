from .cli.tide import main

raise SystemExit(main())
