from chartgate.cli import main

main()
