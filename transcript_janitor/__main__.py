from transcript_janitor.cli import main

raise SystemExit(main())
