from gitrewind.app import main

main()
