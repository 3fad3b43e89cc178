from .peer import main

raise SystemExit(main())
