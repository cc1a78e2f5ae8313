from pipeline_tracker.entrypoints.action import main

raise SystemExit(main())
