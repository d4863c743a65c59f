from oauthcli.app import main

main()
